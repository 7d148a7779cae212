"""Sphinx configuration for the LMS identity service documentation."""

from __future__ import annotations

from datetime import datetime

from lms_identity import __version__

project = "LMS Identity Service"
author = "Platform Team"
copyright = f"{datetime.now():%Y}, {author}"
release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx_autodoc_typehints",
]

autodoc_typehints = "description"
autodoc_member_order = "bysource"
napoleon_google_docstring = False
napoleon_numpy_docstring = True

exclude_patterns: list[str] = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "alabaster"
