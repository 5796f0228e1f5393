"""Shared fixtures for the bastion tests."""

import logging

import pytest

from openstack_bastion.bastion.actuator import Actuator, BastionConfig
from openstack_bastion.bastion.options import determine_options
from openstack_bastion.bastion.polling import Poller
from openstack_bastion.resources.openstack import BastionRequest
from tests.fakes import FakeCloud

CLUSTER = "cluster1"


@pytest.fixture
def cloud():
    """A cloud holding the network, router and workers of cluster1."""
    fake = FakeCloud()
    fake.add_network(CLUSTER)
    fake.add_security_group(CLUSTER)
    fake.add_router(CLUSTER, "ext-net", [
        {"subnet_id": "ext-subnet-v6", "ip_address": "2001:db8::1"},
        {"subnet_id": "ext-subnet", "ip_address": "172.24.4.1"},
    ])
    fake.add_flavor("m1.small")
    fake.add_image("ubuntu-22.04")
    return fake


@pytest.fixture
def bastion_request():
    return BastionRequest(
        name="bastionName1",
        cluster=CLUSTER,
        ingress=["213.69.151.0/24"],
        user_data=b"#!/bin/bash\necho hello",
        region="RegionOne",
        cloud="test",
    )


@pytest.fixture
def opt(bastion_request):
    return determine_options(bastion_request)


@pytest.fixture
def log():
    return logging.getLogger("tests")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def poller(sleeps):
    return Poller(attempts=3, interval=5, retry_after=5, sleep=sleeps.append)


@pytest.fixture
def bastion_config():
    return BastionConfig(flavor_ref="m1.small", image_ref="ubuntu-22.04",
                         poll_attempts=3, poll_interval=1)


@pytest.fixture
def actuator(cloud, bastion_config, sleeps):
    return Actuator(cloud, cloud, config=bastion_config, sleep=sleeps.append)
