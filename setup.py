from setuptools import setup, find_packages

setup(
    name="mountaindb",
    version="0.1.0",
    packages=find_packages(include=["mountaindb", "mountaindb.*"]),
    install_requires=[
        "pandas>=1.3.0",
        "numpy>=1.21.0",
        "requests>=2.26.0",
        "pycountry>=22.0.0",
        "google-cloud-firestore>=2.11.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'mountaindb-import=mountaindb.tools.import_mountains:main',
            'mountaindb-trailheads=mountaindb.tools.import_trailheads:main',
            'mountaindb-migrate-ids=mountaindb.tools.migrate_stable_ids:main',
            'mountaindb-fix-coords=mountaindb.tools.fix_coordinates:main',
            'mountaindb-fix-tags=mountaindb.tools.fix_tags:main',
            'mountaindb-dedupe=mountaindb.tools.deduplicate:main',
            'mountaindb-enrich-osm=mountaindb.tools.enrich_trailheads:main',
        ],
    },
    python_requires=">=3.8",
)
