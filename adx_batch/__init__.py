"""
adx-batch: a controller for batch chart downloads run by an external worker engine.
"""

__version__ = "0.1.0"
