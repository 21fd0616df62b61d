from setuptools import setup, find_packages

setup(
    name='lokoctl',
    version='0.3.0',
    packages=find_packages(exclude=['lokoctl.tests']),
    include_package_data=True,
    package_data={
        'lokoctl.modules.platform': ['templates/*.j2'],
    },
    install_requires=[
        'typer[all]',
        'kubernetes',
        'pyyaml',
        'pydantic>=2',
        'jinja2',
        'jsonschema',
        'urllib3',
        'python-dotenv',
    ],
    extras_require={
        'dev': [
            'pytest',
            'pytest-cov',
        ],
    },
    entry_points={
        'console_scripts': [
            'lokoctl=lokoctl.cli:main'
        ]
    },
    description='A CLI for provisioning Lokomotive Kubernetes clusters and deploying components on them',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
