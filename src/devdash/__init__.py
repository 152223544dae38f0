"""devdash: task list, markdown browser and test dashboard for a web project."""

__version__ = "0.1.0"
