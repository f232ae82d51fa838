# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = "tagsift"
copyright = "2025, Genome Research Ltd."
author = "Genome Research Ltd."
release = "1.0.0"

# -- General configuration ---------------------------------------------------

extensions = [
    "myst_parser",
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
]

source_suffix = {".rst": "restructuredtext", ".md": "markdown"}

templates_path = ["_templates"]
exclude_patterns = ["tagsift/cli.py"]

# shorter type hints (e.g. List[int] not typing.List[int])
python_use_unqualified_type_names = True

# -- Options for HTML output -------------------------------------------------

html_theme = "sphinx_rtd_theme"
html_static_path = ["_static"]

html_theme_options = {
    "navigation_depth": 3,
    "collapse_navigation": False,
    "sticky_navigation": True,
}

autodoc_default_options = {
    "members": True,
    "undoc-members": False,
    "show-inheritance": False,
    "private-members": False,
}
add_module_names = False
autodoc_member_order = "bysource"
