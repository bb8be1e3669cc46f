from setuptools import setup, find_packages


long_description = open('README.rst').read()

setup(
    name='PyCastGateway',
    version='0.1.0',
    license='MIT',
    description='Share one Google Cast session between many web page clients.',
    long_description=long_description,
    packages=find_packages(exclude=['tests', 'tests.*']),
    zip_safe=False,
    include_package_data=True,
    platforms='any',
    python_requires='>=3.10',
    install_requires=list(val.strip() for val in open('requirements.txt')),
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules'
    ]
)
