from setuptools import setup, find_packages

setup(
    name="redisbench",
    version="0.1.0",
    packages=find_packages(include=['redisbench', 'redisbench.*']),
    install_requires=[
        'pyyaml>=5.1',
        'pydantic>=2.0',
        'redis>=4.1.0',
        'hdrhistogram>=0.10.3',
        'numpy>=1.20',
        'requests>=2.25.0',
        'Flask>=2.0.0',
        'Werkzeug>=2.0.0',
        'click>=8.0',
        'rich>=10.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'redisbench=redisbench.cli:main',
        ],
    },
    python_requires='>=3.8',
)
