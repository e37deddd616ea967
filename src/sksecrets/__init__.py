"""
SKSecrets: sovereign secrets CLI.

Store and retrieve credentials through interchangeable backends.
The local backend keeps every value sealed under your passphrase;
backups travel as portable, hybrid-encrypted envelopes.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

CONFIG_PATH = os.environ.get("SKSECRETS_CONFIG", "~/.sksecrets.yaml")
