"""Navigator SimplePass Meta information.
   Navigator SimplePass gates an aiohttp application behind a shared pass key
   or an email/password pair, using stateless sealed session cookies.
"""
__title__ = 'navigator_simplepass'
__description__ = (
   'Navigator SimplePass gates aiohttp routes behind a shared credential '
   'check with stateless sealed session cookies.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-simplepass'
