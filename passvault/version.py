"""PassVault Meta information.
   PassVault keeps a per-user set of labeled credentials encrypted at rest.
"""
__title__ = 'passvault'
__description__ = (
   'PassVault keeps a per-user set of labeled credentials '
   'encrypted at rest in local files.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 PassVault Developers'
__author__ = 'PassVault Developers'
__license__ = 'Apache-2.0'
