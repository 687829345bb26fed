#!/usr/bin/env python
"""Setuptools distribution file."""
import os
from setuptools import setup


def _get_here(fname):
    return os.path.join(os.path.dirname(__file__), fname)


def _get_long_description(fname, encoding='utf8'):
    with open(fname, 'r', encoding=encoding) as fin:
        return fin.read()


setup(name='telnvt',
      version='1.0.0',
      license='ISC',
      description="Threaded line-oriented Telnet server connections",
      long_description=_get_long_description(fname=_get_here('README.rst')),
      long_description_content_type='text/x-rst',
      packages=['telnvt', 'telnvt.tests'],
      python_requires='>=3.8',
      install_requires=[],
      extras_require={
          'test': ['pytest'],
      },
      entry_points={
         'console_scripts': [
             'telnvt-server = telnvt.server:main',
         ]},
      platforms='any',
      zip_safe=True,
      keywords=', '.join(('telnet', 'server', 'nvt', 'rfc854', 'mud',
                          'utf8', 'threading', 'talker')),
      classifiers=['License :: OSI Approved :: ISC License (ISCL)',
                   'Programming Language :: Python :: 3',
                   'Intended Audience :: Developers',
                   'Development Status :: 4 - Beta',
                   'Topic :: System :: Networking',
                   'Topic :: Terminals :: Telnet',
                   'Topic :: Internet',
                   ],
      )
