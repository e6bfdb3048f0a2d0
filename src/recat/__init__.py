"""Recat: retroactive transaction categorization with undoable batches."""


# The CLI pulls in every service, so only load it when asked for
def __getattr__(name):
    if name == "main":
        from recat.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
