"""Django settings for the server project.

Settings are split into components and per-environment overrides.
The environment is selected with the ``DJANGO_ENV`` variable.

See https://github.com/wemake-services/django-split-settings
"""

from os import environ

from split_settings.tools import include, optional

environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/caches.py',
    'components/storages.py',

    # Select the right env:
    'environments/{0}.py'.format(_ENV),

    # Optionally override some settings:
    optional('environments/local.py'),
)

include(*_base_settings)
