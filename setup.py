from setuptools import setup, find_packages

from sapodilla.__version__ import __version__

with open("README.md", "r", encoding="utf-8") as f:
  long_description = f.read()


extras_serial = [
  "pyserial"
]

extras_dev = extras_serial + [
    "pytest",
    "pytest-timeout",
    "pylint",
    "mypy",
  ]

extras_all = extras_dev

setup(
  name="sapodilla",
  version=__version__,
  packages=find_packages(exclude=["tools", "tools.*"]),
  description="Link protocol engine and driver for PixCut photo printers",
  long_description=long_description,
  long_description_content_type="text/markdown",
  install_requires=["typing_extensions"],
  package_data={"sapodilla": ["version.txt"]},
  extras_require={
    "serial": extras_serial,
    "dev": extras_dev,
    "all": extras_all,
  },
  entry_points={
    "console_scripts": [
      "sapodilla=sapodilla.cmd.link_tool:main",
    ],
  }
)
