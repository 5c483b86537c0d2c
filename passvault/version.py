"""PassVault Meta information.
   PassVault keeps a password-protected, per-entry encrypted secrets vault.
"""
__title__ = 'passvault'
__description__ = (
   'Local secrets vault with Argon2id key derivation '
   'and AES-GCM encrypted entries.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 PassVault Authors'
__author__ = 'PassVault Authors'
__author_email__ = 'passvault@users.noreply.github.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/passvault/passvault'
