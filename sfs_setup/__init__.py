# sfs_setup/__init__.py
# -*- coding: utf-8 -*-
"""Settings, command line handling and stage orchestration for the installer."""

__version__ = "1.0.0"
