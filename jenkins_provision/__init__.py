"""jenkins-provision — install and configure a Jenkins server on this host."""

__version__ = "0.1.0"
