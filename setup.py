from setuptools import find_packages, setup

setup(
    name='sslfactory',
    version='1.0.0',
    description='TLS client socket factory with pluggable certificate trust',
    author='',
    author_email='',
    packages=find_packages(include=['sslfactory', 'sslfactory.*']),
    python_requires='>=3.11',
    install_requires=[
        'cryptography>=42',
        'msgspec>=0.18',
        'prometheus_client',
    ],
    extras_require={
        'tests': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'sslfactory-probe=sslfactory.tools.probe:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
