"""Tests for naming, hyperparameter, S3 and VPC helpers."""

import tarfile

from botocore.exceptions import ClientError
import pytest

from sagekit import s3, utils, vpc_utils


class TestNaming:
    """Test resource name generation."""

    def test_name_from_base(self):
        """Test that a timestamp suffix is appended."""
        name = utils.name_from_base("my-job")
        assert name.startswith("my-job-")
        assert utils.base_from_name(name) == "my-job"

    def test_name_from_base_trims_to_max_length(self):
        """Test that long bases are trimmed to the SageMaker limit."""
        name = utils.name_from_base("a" * 100)
        assert len(name) == utils.MAX_NAME_LENGTH

    def test_short_name(self):
        """Test the short timestamp format."""
        name = utils.name_from_base("job", short=True)
        assert len(name) == len("job-YYMMDD-HHMM")
        assert utils.base_from_name(name) == "job"

    def test_unique_name_from_base(self):
        """Test that unique names stay within the limit."""
        name = utils.unique_name_from_base("b" * 80)
        assert len(name) <= utils.MAX_NAME_LENGTH

    def test_base_from_name_without_timestamp(self):
        """Test that names without a timestamp are returned unchanged."""
        assert utils.base_from_name("plain-name") == "plain-name"

    @pytest.mark.parametrize(
        "image,expected",
        [
            ("123456789012.dkr.ecr.us-west-2.amazonaws.com/sagemaker-xgboost:1.0-1-cpu-py3", "sagemaker-xgboost"),
            ("my-repo/my-image", "my-image"),
            ("my-image:latest", "my-image"),
            ("my-image", "my-image"),
        ],
    )
    def test_base_name_from_image(self, image, expected):
        """Test extracting the repository name of an image."""
        assert utils.base_name_from_image(image) == expected


class TestHyperparameters:
    """Test hyperparameter encoding."""

    def test_stringify(self):
        """Test that booleans are lowercased and numbers converted."""
        assert utils.stringify_hyperparameters({"a": True, "b": 3, "c": 0.5}) == {
            "a": "true",
            "b": "3",
            "c": "0.5",
        }

    def test_json_encode(self):
        """Test that values are JSON-encoded."""
        assert utils.json_encode_hyperparameters({"script": "train.py", "n": 2}) == {
            "script": '"train.py"',
            "n": "2",
        }

    def test_build_dict(self):
        """Test that falsy values produce an empty dict."""
        assert utils.build_dict("Key", "v") == {"Key": "v"}
        assert utils.build_dict("Key", None) == {}

    def test_get_config_value(self):
        """Test dotted key lookup."""
        config = {"a": {"b": {"c": 1}}}
        assert utils.get_config_value("a.b.c", config) == 1
        assert utils.get_config_value("a.x", config) is None
        assert utils.get_config_value("a", None) is None


class TestSecondaryStatus:
    """Test training status transition messages."""

    def test_changed(self):
        """Test detecting a new status message."""
        prev = {"SecondaryStatusTransitions": [{"Status": "Starting", "StatusMessage": "a"}]}
        current = {
            "SecondaryStatusTransitions": [
                {"Status": "Starting", "StatusMessage": "a"},
                {"Status": "Training", "StatusMessage": "b"},
            ]
        }
        assert utils.secondary_training_status_changed(current, prev)
        assert not utils.secondary_training_status_changed(current, current)
        assert not utils.secondary_training_status_changed({}, prev)

    def test_message_lists_new_transitions(self):
        """Test that only transitions since the previous poll are printed."""
        prev = {"SecondaryStatusTransitions": [{"Status": "Starting", "StatusMessage": "a"}]}
        current = {
            "SecondaryStatusTransitions": [
                {"Status": "Starting", "StatusMessage": "a"},
                {"Status": "Downloading", "StatusMessage": "b"},
                {"Status": "Training", "StatusMessage": "c"},
            ]
        }
        lines = utils.secondary_training_status_message(current, prev).splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("Downloading - b")
        assert lines[1].endswith("Training - c")


class TestArchives:
    """Test archive and download helpers."""

    def test_create_tar_file(self, tmp_path):
        """Test that files and directories land at the archive root."""
        script = tmp_path / "train.py"
        script.write_text("print('hi')\n")
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "util.py").write_text("")

        target = utils.create_tar_file([str(script), str(lib)], str(tmp_path / "out.tar.gz"))

        with tarfile.open(target) as tar:
            names = sorted(tar.getnames())
        assert names == ["lib", "lib/util.py", "train.py"]

    def test_download_single_object(self, session, s3_client, tmp_path):
        """Test that a key is first tried as a single object."""
        utils.download_folder("bucket", "/models/model.tar.gz", str(tmp_path), session)
        s3_client.download_file.assert_called_once_with(
            "bucket", "models/model.tar.gz", str(tmp_path / "model.tar.gz")
        )

    def test_download_prefix_fallback(self, session, s3_client, tmp_path):
        """Test that a missing object falls back to a prefix download."""
        s3_client.download_file.side_effect = [
            ClientError({"Error": {"Code": "404"}}, "HeadObject"),
            None,
        ]
        s3_client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "output/data/part-0"}]}
        ]
        utils.download_folder("bucket", "output", str(tmp_path), session)
        last_call = s3_client.download_file.call_args
        assert last_call.args[:3] == ("bucket", "output/data/part-0", str(tmp_path / "data" / "part-0"))


class TestS3:
    """Test S3 URI helpers."""

    def test_parse_s3_url(self):
        """Test splitting a URI into bucket and key."""
        assert s3.parse_s3_url("s3://bucket/path/to/key") == ("bucket", "path/to/key")
        assert s3.parse_s3_url("s3://bucket") == ("bucket", "")

    def test_parse_invalid_scheme(self):
        """Test that non-S3 URIs are rejected."""
        with pytest.raises(ValueError, match="Expecting 's3' scheme"):
            s3.parse_s3_url("https://bucket/key")

    def test_s3_path_join(self):
        """Test joining segments while keeping the scheme."""
        assert s3.s3_path_join("s3://bucket/", "/prefix/", "file") == "s3://bucket/prefix/file"
        assert s3.s3_path_join("prefix", "", "file") == "prefix/file"
        assert s3.s3_path_join("s3://bucket", "a//b", "c") == "s3://bucket/a/b/c"
        assert s3.s3_path_join() == ""

    def test_uploader_with_kms(self, session, s3_client, tmp_path):
        """Test that a KMS key becomes server-side encryption arguments."""
        path = tmp_path / "data.csv"
        path.write_text("1\n")
        uri = s3.S3Uploader.upload(str(path), "s3://bucket/prefix", session, kms_key="key")
        assert uri == "s3://bucket/prefix/data.csv"
        assert s3_client.upload_file.call_args.kwargs["ExtraArgs"] == {
            "SSEKMSKeyId": "key",
            "ServerSideEncryption": "aws:kms",
        }

    def test_downloader_list(self, session, s3_client):
        """Test listing object URIs under a prefix."""
        s3_client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "prefix/a"}, {"Key": "prefix/b"}]},
            {},
        ]
        assert s3.S3Downloader.list("s3://bucket/prefix", session) == [
            "s3://bucket/prefix/a",
            "s3://bucket/prefix/b",
        ]

    def test_downloader_download_with_kms(self, session, s3_client, tmp_path):
        """Test that a KMS key adds no arguments when reading objects."""
        s3_client.get_paginator.return_value.paginate.return_value = [{"Contents": [{"Key": "prefix/a.csv"}]}]

        paths = s3.S3Downloader.download("s3://bucket/prefix", str(tmp_path), session, kms_key="key")

        assert paths == [str(tmp_path / "a.csv")]
        s3_client.download_file.assert_called_once_with(
            "bucket", "prefix/a.csv", str(tmp_path / "a.csv"), ExtraArgs=None
        )


class TestVpcUtils:
    """Test VpcConfig helpers."""

    def test_to_dict(self):
        """Test building a VpcConfig dict."""
        assert vpc_utils.to_dict(["subnet-1"], ["sg-1"]) == {
            "Subnets": ["subnet-1"],
            "SecurityGroupIds": ["sg-1"],
        }
        assert vpc_utils.to_dict(None, ["sg-1"]) is None

    def test_from_dict(self):
        """Test extracting subnets and security groups."""
        config = {"Subnets": ["subnet-1"], "SecurityGroupIds": ["sg-1"], "Extra": 1}
        assert vpc_utils.from_dict(config, do_sanitize=True) == (["subnet-1"], ["sg-1"])
        assert vpc_utils.from_dict(None) == (None, None)

    def test_sanitize_drops_extra_keys(self):
        """Test that unexpected keys are removed."""
        config = {"Subnets": ["subnet-1"], "SecurityGroupIds": ["sg-1"], "Extra": 1}
        assert "Extra" not in vpc_utils.sanitize(config)

    @pytest.mark.parametrize(
        "config,error",
        [
            ("subnet-1", TypeError),
            ({}, ValueError),
            ({"SecurityGroupIds": ["sg-1"]}, ValueError),
            ({"Subnets": "subnet-1", "SecurityGroupIds": ["sg-1"]}, TypeError),
            ({"Subnets": [], "SecurityGroupIds": ["sg-1"]}, ValueError),
            ({"Subnets": ["subnet-1"], "SecurityGroupIds": []}, ValueError),
        ],
    )
    def test_sanitize_invalid(self, config, error):
        """Test that malformed configurations are rejected."""
        with pytest.raises(error):
            vpc_utils.sanitize(config)
