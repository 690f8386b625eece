"""Sophia Vault Meta information.
   Sophia Vault keeps provider API keys encrypted at rest on the local machine.
"""
__title__ = 'sophia_vault'
__description__ = (
   'Sophia Vault keeps provider API keys encrypted at rest '
   'on the local machine.'
)
__version__ = '1.2.0'
__copyright__ = 'Copyright (c) 2025 Sophia Assistant'
__author__ = 'Sophia Assistant'
__license__ = 'Apache-2.0'
