from setuptools import setup, find_packages

setup(
    name="failrite",
    author="Sanic Community",
    author_email="tronic@noreply.users.github.com",
    description="Human-readable, source-mapped test failure reports",
    long_description=open("README.md", encoding="UTF-8").read(),
    long_description_content_type="text/markdown",
    url="https://github.com/sanic-org/failrite",
    use_scm_version={"fallback_version": "0.1.0"},
    setup_requires = ["setuptools_scm"],
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    classifiers = [
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "License :: Public Domain",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Testing",
    ],
    install_requires = ["html5tagger>=1.2.1"],
    extras_require = {"test": ["pytest", "coverage"]},
    package_data = {"failrite": ["style.css"]},
    include_package_data = True,
)
