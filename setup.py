import os

import setuptools

setuptools.setup(
    name="irc-bridge",
    version="0.1.0",
    license="Apache-2.0",
    description="Relays messages, actions and presence events between IRC networks.",
    keywords="irc bridge relay async trio",
    install_requires=open(os.path.join(os.path.dirname(__file__), "requirements.txt"))
    .read()
    .strip()
    .split("\n"),
    extras_require={"test": ["pytest", "pytest-trio"]},
    long_description=open(os.path.join(os.path.dirname(__file__), "description.md")).read(),
    long_description_content_type="text/markdown",
    packages=["ircbridge", "ircbridge.backends"],
    python_requires=">=3.8",
    entry_points={"console_scripts": ["irc-bridge = ircbridge.__main__:main"]},
    classifiers=[
        "Framework :: Trio",
        "Topic :: Communications :: Chat :: Internet Relay Chat",
        "Topic :: System :: Networking",
    ],
)
