"""Install the site auth service."""

from setuptools import setup, find_packages

setup(
    name='siteauth',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    install_requires=[
        "flask",
        "werkzeug",
        "sqlalchemy>=2.0",
        "wtforms",
        "bcrypt",
        "boto3",
        "pytz",
        "click",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
            "mimesis",
            "python-dateutil",
        ],
    },
    zip_safe=False
)
