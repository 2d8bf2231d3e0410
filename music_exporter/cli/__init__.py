"""
Command-line interface: the Typer application, Rich formatters and reporters.
"""
