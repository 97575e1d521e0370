import setuptools

VERSION = '0.1.0'

setup_params = dict(
    name='cached-proxy',
    version=VERSION,
    author='Kenneth VanderLinde',
    author_email='kwvanderlinde@gmail.com',
    keywords='http proxy cache',
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    package_dir={'cachedproxy': 'cachedproxy'},
    include_package_data=True,
    description='A forwarding HTTP proxy that caches resources on local disk',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    install_requires=['requests>=2.18.4', 'dataclasses~=0.6;python_version<"3.7"'],
    extras_require={
        'dev': [
            'mockito>=1.1.1',
            'pytest>=5.1.2',
            'pytest-cov>=2.7.1',
            'ddt>=1.2',
        ]
    },
    entry_points={
        'console_scripts': [
            'cached-proxy=cachedproxy.cli:main',
        ],
    },
    python_requires='>=3.6',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Environment :: No Input/Output (Daemon)',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Topic :: Internet :: Proxy Servers',

        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
    ],
)


if __name__ == '__main__':
    setuptools.setup(**setup_params)
