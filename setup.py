from setuptools import setup, find_packages

setup(
    name='cksctl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'cksctl.modules': ['templates/*.j2'],
    },
    install_requires=[
        'typer[all]',
        'pydantic>=2',
        'pyyaml',
        'jinja2',
        'python-dotenv',
        'requests',
        'rich',
    ],
    extras_require={
        'dev': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'cksctl=cksctl.cli:app'
        ]
    },
    author='Your Name',
    description='Single-node Kubernetes cluster setup, reset and teardown for CKS exam practice',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
