"""
ec2runner — ephemeral EC2 self-hosted runners for GitHub Actions.

Start an EC2 instance that registers itself as a runner in a runner
group, wait until it is ready, and tear it down again when the job
is done.
"""

__version__ = "0.1.0"
__author__ = "smilinTux"
