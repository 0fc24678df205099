from unittest.mock import MagicMock

from botocore.exceptions import EndpointConnectionError

from eks_addons.services.eks_client import EksAddonClient
from eks_addons.services.sweeper import AddonSweeper, is_skippable
from tests.conftest import client_error


class TestIsSkippable:
    def test_codes(self):
        assert is_skippable(client_error("UnrecognizedClientException", "ListClusters"))
        assert is_skippable(EndpointConnectionError(endpoint_url="https://eks.example"))
        assert not is_skippable(client_error("ThrottlingException", "ListClusters"))
        assert not is_skippable(RuntimeError("boom"))


class TestAddonSweeper:
    def test_deletes_addons_in_every_cluster(self, eks_api, eks_client):
        eks_api.put_addon("one", "vpc-cni")
        eks_api.put_addon("one", "coredns")
        eks_api.put_addon("two", "kube-proxy")

        result = AddonSweeper(eks_client, "us-west-2").sweep()

        assert result.clusters_scanned == 2
        assert sorted(result.swept) == ["one:coredns", "one:vpc-cni", "two:kube-proxy"]
        assert result.errors == []
        assert eks_api.addons == {}

    def test_dry_run_deletes_nothing(self, eks_api, eks_client):
        eks_api.put_addon("one", "vpc-cni")

        result = AddonSweeper(eks_client, "us-west-2", dry_run=True).sweep()

        assert result.swept == ["one:vpc-cni"]
        assert ("one", "vpc-cni") in eks_api.addons

    def test_skips_unavailable_region(self):
        boto_client = MagicMock()
        boto_client.get_paginator.return_value.paginate.side_effect = client_error(
            "UnrecognizedClientException", "ListClusters"
        )

        result = AddonSweeper(EksAddonClient(boto_client), "ap-east-1").sweep()

        assert result.skipped
        assert result.errors == []
        boto_client.delete_addon.assert_not_called()

    def test_collects_errors_and_keeps_going(self, eks_api, eks_client):
        eks_api.put_addon("one", "vpc-cni")
        eks_api.put_addon("one", "coredns")
        original_delete = eks_api.delete_addon

        def flaky_delete(clusterName, addonName):
            if addonName == "vpc-cni":
                raise client_error("InvalidRequestException", "DeleteAddon")
            return original_delete(clusterName=clusterName, addonName=addonName)

        eks_api.delete_addon = flaky_delete

        result = AddonSweeper(eks_client, "us-west-2").sweep()

        assert result.swept == ["one:coredns"]
        assert len(result.errors) == 1
        assert "one:vpc-cni" in result.errors[0]

    def test_transport_errors_do_not_abort_sweep(self, eks_api, eks_client):
        eks_api.put_addon("one", "vpc-cni")
        eks_api.put_addon("one", "coredns")
        original_delete = eks_api.delete_addon

        def unreachable_delete(clusterName, addonName):
            if addonName == "vpc-cni":
                raise EndpointConnectionError(endpoint_url="https://eks.us-west-2.amazonaws.com")
            return original_delete(clusterName=clusterName, addonName=addonName)

        eks_api.delete_addon = unreachable_delete

        result = AddonSweeper(eks_client, "us-west-2").sweep()

        assert result.swept == ["one:coredns"]
        assert len(result.errors) == 1
        assert "one:vpc-cni" in result.errors[0]

    def test_listing_failure_is_reported(self):
        boto_client = MagicMock()
        boto_client.get_paginator.return_value.paginate.side_effect = client_error(
            "ThrottlingException", "ListClusters"
        )

        result = AddonSweeper(EksAddonClient(boto_client), "us-west-2").sweep()

        assert result.skipped is None
        assert result.errors and "error listing EKS Clusters" in result.errors[0]
