from setuptools import setup

exec(open('version.py').read())

setup(
    name='pyPAG',
    packages=['pypag', 'pypag.tests'],
    version=__version__,
    python_requires='>=3.8',
    install_requires=['networkx', 'numpy', 'scipy', 'matplotlib', 'seaborn'],
    extras_require={'test': ['pytest']},
)
