import pytest

from openstack_bastion.bastion.actuator import (
    Actuator,
    BastionConfig,
    bastion_config_check,
    machine_references,
)
from openstack_bastion.exceptions import CancelledError, ConfigurationError, NotReadyError
from openstack_bastion.resources.openstack import BastionRequest
from openstack_bastion.resources.profile import CloudProfile


def names(calls):
    return [call[0] for call in calls]


def test_reconcile_provisions_bastion(cloud, actuator, bastion_request, opt):
    endpoints = actuator.reconcile(bastion_request)

    assert endpoints.ready()
    assert endpoints.private.ip.startswith("10.250.0.")
    assert endpoints.public.ip.startswith("172.24.4.")
    assert names(cloud.mutations) == [
        "create_security_group",
        "create_rule",
        "create_rule",
        "create_server",
        "create_floating_ip",
        "associate_floating_ip",
    ]
    fip = cloud.find_floating_ips_by_description(opt.instance_name)[0]
    assert fip.port_id is not None


def test_second_reconcile_changes_nothing(cloud, actuator, bastion_request):
    first = actuator.reconcile(bastion_request)
    cloud.calls.clear()

    assert actuator.reconcile(bastion_request) == first
    assert cloud.mutations == []


def test_reconcile_resumes_partial_state(cloud, actuator, bastion_request, opt):
    group = cloud.add_security_group(opt.security_group_name)

    actuator.reconcile(bastion_request)

    assert "create_security_group" not in names(cloud.mutations)
    assert len(cloud.list_rules(group.id)) == 2


def test_reconcile_follows_ingress_changes(cloud, actuator, bastion_request, opt):
    actuator.reconcile(bastion_request)
    cloud.calls.clear()
    changed = bastion_request.model_copy(update={"ingress": ["::/0"]})

    actuator.reconcile(changed)

    assert names(cloud.mutations) == ["create_rule", "delete_rule"]
    group = cloud.find_security_groups_by_name(opt.security_group_name)[0]
    ingress = [r for r in cloud.list_rules(group.id) if r.direction == "ingress"]
    assert [(r.ether_type, r.remote_ip_prefix) for r in ingress] == [("IPv6", "::/0")]


def test_reconcile_of_building_instance_is_not_ready(cloud, actuator, bastion_request):
    cloud.build_polls = 100

    with pytest.raises(NotReadyError) as exc:
        actuator.reconcile(bastion_request)

    assert exc.value.retry_after == 5
    assert "create_floating_ip" not in names(cloud.mutations)


def test_reconcile_without_public_address_is_not_ready(cloud, bastion_config,
                                                       bastion_request, sleeps):
    def no_association(fip_id, port_id):
        return cloud.get_floating_ip(fip_id).model_copy(update={"port_id": port_id})
    cloud.associate_floating_ip = no_association
    actuator = Actuator(cloud, cloud, config=bastion_config.model_copy(
        update={"ready_requeue_after": 8}), sleep=sleeps.append)

    with pytest.raises(NotReadyError, match="no public/private endpoints yet") as exc:
        actuator.reconcile(bastion_request)
    assert exc.value.retry_after == 8


def test_reconcile_invalid_ingress_mutates_nothing(cloud, actuator):
    request = BastionRequest(name="b", cluster="cluster1", ingress=["invalid"])

    with pytest.raises(ConfigurationError):
        actuator.reconcile(request)
    assert cloud.mutations == []


def test_reconcile_cancelled_while_polling(cloud, bastion_config, bastion_request, sleeps):
    cloud.build_polls = 100
    actuator = Actuator(cloud, cloud, config=bastion_config, sleep=sleeps.append,
                        cancelled=lambda: len(sleeps) > 0)

    with pytest.raises(CancelledError):
        actuator.reconcile(bastion_request)
    assert len(sleeps) == 1


def test_delete_after_reconcile(cloud, actuator, bastion_request, opt):
    actuator.reconcile(bastion_request)

    actuator.delete(bastion_request)

    assert cloud.servers == {}
    assert cloud.floating_ips == {}
    assert cloud.find_security_groups_by_name(opt.security_group_name) == []


def test_delete_reports_still_deleting(cloud, actuator, bastion_request, opt):
    actuator.reconcile(bastion_request)
    cloud.delete_immediately = False

    with pytest.raises(NotReadyError, match="still deleting") as exc:
        actuator.delete(bastion_request)
    assert exc.value.retry_after == 10
    assert len(cloud.find_security_groups_by_name(opt.security_group_name)) == 1


def test_config_check_requires_machine(bastion_request):
    with pytest.raises(ConfigurationError, match="no flavor"):
        bastion_config_check(BastionConfig(image_ref="image"), bastion_request)
    with pytest.raises(ConfigurationError, match="no image"):
        bastion_config_check(BastionConfig(flavor_ref="flavor"), bastion_request)
    with pytest.raises(ConfigurationError):
        bastion_config_check(None, bastion_request)


def test_missing_machine_fails_before_cloud_calls(cloud, bastion_request):
    actuator = Actuator(cloud, cloud, config=BastionConfig())

    with pytest.raises(ConfigurationError):
        actuator.reconcile(bastion_request)
    assert cloud.calls == []


def test_machine_references_from_config(bastion_config, bastion_request):
    assert machine_references(bastion_config, bastion_request) == ("m1.small", "ubuntu-22.04")


def test_machine_references_from_cloud_profile(bastion_request):
    profile = CloudProfile.model_validate({
        "machine_types": [
            {"name": "m1.large", "cpu": 8, "architecture": "amd64"},
            {"name": "m1.small", "cpu": 1, "architecture": "amd64"},
        ],
        "machine_images": [{
            "name": "ubuntu",
            "versions": [
                {"version": "22.4.0", "architectures": ["amd64"],
                 "classification": "supported", "image": "ubuntu-22.04"},
                {"version": "20.4.0", "architectures": ["amd64"],
                 "classification": "supported", "image": "ubuntu-20.04"},
            ],
        }],
    })
    request = bastion_request.model_copy(update={"cloud_profile": profile})

    assert machine_references(BastionConfig(), request) == ("m1.small", "ubuntu-22.04")
    assert machine_references(BastionConfig(flavor_ref="custom"), request) == \
        ("custom", "ubuntu-22.04")
