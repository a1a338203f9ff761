"""
Command-line display layer built on Typer and Rich.
"""
