from openstack_bastion.workflows.bastion import build_request, setup_opts, workflow_id


def test_cli_request(tmp_path):
    user_data = tmp_path / "user-data"
    user_data.write_bytes(b"#!/bin/bash\necho hello")

    options, rest = setup_opts([
        "create", "--name", "bastionName1", "--cluster", "cluster1", "--cloud", "devstack",
        "--ingress", "213.69.151.0/24", "--ingress", "::/0",
        "--user-data", str(user_data), "--config-file", "bastion.conf",
    ])
    request = build_request(options)

    assert options.operation == "create"
    assert rest == ["--config-file", "bastion.conf"]
    assert request.ingress == ["213.69.151.0/24", "::/0"]
    assert request.user_data == b"#!/bin/bash\necho hello"
    assert request.region is None
    assert workflow_id(request, "create") == "bastion-cluster1-bastionName1-create"


def test_cli_request_without_user_data():
    options, _ = setup_opts(["delete", "--name", "b", "--cluster", "c", "--cloud", "devstack"])

    request = build_request(options)

    assert request.user_data == b""
    assert request.ingress == []
