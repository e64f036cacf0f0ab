"""Settings for production, values come from the environment."""

from server.settings.components import config

DEBUG = False

ALLOWED_HOSTS = config(
    'DOMAIN_NAME',
    cast=lambda hosts: [host.strip() for host in hosts.split(',')],
    default='localhost',
)
