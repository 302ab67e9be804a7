from setuptools import setup, find_packages

setup(
    name='fortuna-ledger',
    version='0.1.0',
    packages=find_packages(include=['fortuna', 'fortuna.*']),
    install_requires=[
        'numpy',
        'pandas',
        'python-dotenv',
        'supabase',
        'typing_extensions',
    ],
    extras_require={
        'test': ['pytest'],
    },
    description='Deterministic Python engine for the Fortuna fixed-stake pari-mutuel prediction market ledger, including fee accounting, licensing, oracle resolution and payouts.',
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.11',
)
