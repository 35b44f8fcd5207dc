from setuptools import setup, find_packages
import re

# Read version from tpogcalc/__init__.py
with open('tpogcalc/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='tpog-calc',
    version=version,
    packages=find_packages(include=['tpogcalc', 'tpogcalc.*']),
    install_requires=[
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.0.0',
        'rich>=13.0',
    ],
    extras_require={
        'mcp': [
            'mcp[cli]>=1.0.0,<2',
        ],
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'tpog-calc=tpogcalc.cli.__main__:main',
            'tpog-calc-mcp=tpogcalc.mcp.server:run_server',
        ],
    },
    author='Personal',
    description='Driver TPOG compensation, time-off accrual and escrow calculator.',
    python_requires='>=3.10',
)
