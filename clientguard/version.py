"""ClientGuard Meta information.
   ClientGuard protects user data persisted by client-side applications.
"""
__title__ = 'clientguard'
__description__ = (
   'ClientGuard keeps user data encrypted, expiring and CSRF-bound '
   'on top of a plain key-value store.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
