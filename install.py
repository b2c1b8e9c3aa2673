#!/usr/bin/env python3
# filename: session-fileserver-setup/install.py
# -*- coding: utf-8 -*-
"""
Entry point for the session-file-server installer.

Usage: sudo python3 install.py --domain <domain_name>
"""

import sys

from sfs_setup.main_installer import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
