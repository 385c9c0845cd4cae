# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# Add the project src to Python path
sys.path.insert(0, os.path.abspath('../../../src'))

# -- Project information -----------------------------------------------------

project = 'PoseCanvas'
copyright = '2025, PoseCanvas contributors'
author = 'PoseCanvas contributors'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",      # Google-style docstrings
    "sphinx.ext.viewcode",      # "View Source" links
    "myst_parser",              # Markdown pages (README, DESIGN)
    "sphinx_autodoc_typehints",
    "sphinx.ext.autosectionlabel",
]

templates_path = ['_templates']
exclude_patterns = []
autosectionlabel_prefix_document = True

# -- Options for HTML output -------------------------------------------------

html_theme = "furo"
html_static_path = []

autodoc_default_options = {
    "members": True,
    "undoc-members": False,
    "private-members": False,
    "show-inheritance": True,
}

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True
napoleon_use_param = True
napoleon_use_rtype = True

# Heavy runtime deps are not needed to render the API pages
autodoc_mock_imports = [
    "cv2",
    "PySide6",
    "tflite_runtime",
    "tensorflow",
]
