# Sphinx configuration file

import os
import sys
sys.path.insert(0, os.path.abspath('../src'))

from cloud_triggers import __version__  # noqa: E402

project = 'cloud-triggers'
copyright = '2026, cloud-triggers contributors'
author = 'cloud-triggers contributors'
release = __version__

root_doc = 'index'

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
    'sphinx_autodoc_typehints',
]

templates_path = []
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

html_theme = 'sphinx_rtd_theme'

# Autodoc settings
autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'undoc-members': True,
    'exclude-members': '__weakref__, model_config',
}
# Option classes and CloudEvent are documented by their constructor signature.
autoclass_content = 'both'
always_document_param_types = True

# Napoleon settings: the package uses Google-style sections (Args/Raises/Attributes).
napoleon_google_docstring = True
napoleon_numpy_docstring = False

# Intersphinx mapping
intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'pydantic': ('https://docs.pydantic.dev/latest', None),
    'fastapi': ('https://fastapi.tiangolo.com', None),
    'starlette': ('https://www.starlette.io', None),
}
