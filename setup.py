"""
hybridshop Setup Script

Install with: pip install -e .
Tests:        pip install -e ".[test]"
"""

from setuptools import setup, find_packages

setup(
    name='hybridshop',
    version='0.1.0',
    description='Hybrid document/vector/graph product store with a product knowledge graph',
    packages=find_packages(exclude=['tests*']),
    package_data={
        'hybridshop.config': ['*.yaml'],
    },
    include_package_data=True,
    install_requires=[
        'sqlalchemy>=2.0.0',
        'asyncpg>=0.29.0',
        'aiosqlite>=0.19.0',
        'greenlet>=3.0.0',
        'pydantic>=2.5.0',
        'pyyaml>=6.0.1',
        'numpy>=1.26.0',
        'aiohttp>=3.9.0',
        'structlog>=24.1.0',
        'falkordb>=1.0.0',
        'redis>=5.0',
        'qdrant-client>=1.10.0',
        'click>=8.1.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'hybridshop=hybridshop.cli:cli',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Database',
    ],
)
