from setuptools import setup, find_packages

setup(
    name='csctl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'pydantic>=2',
        'PyYAML',
        'jsonschema',
        'rich>=13.7',
        'python-dotenv',
        'paramiko',
        'cryptography>=42',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'csctl=csctl.cli:app'
        ]
    },
    author='Your Name',
    description='A CLI that compiles Codesphere install configs, vaults and k0s cluster configs',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
