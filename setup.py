import os

import setuptools

setuptools.setup(
    name="tribridge",
    version="0.1.0",
    description="An IRC to Discord bridge that mirrors an IRC network's channels into a Discord guild.",
    keywords="bot bridge async trio irc discord",
    install_requires=open(os.path.join(os.path.dirname(__file__), "requirements.txt"))
    .read()
    .strip()
    .split("\n"),
    extras_require={"test": ["pytest", "hypothesis"]},
    packages=["tribridge", "tribridge.backends", "tribridge.mutators"],
    entry_points={"console_scripts": ["tribridge = tribridge.__main__:main"]},
    python_requires=">=3.8",
    classifiers=[
        "Framework :: Trio",
        "Topic :: System :: Networking",
        "Topic :: Communications :: Chat",
        "Topic :: Communications :: Chat :: Internet Relay Chat",
    ],
)
