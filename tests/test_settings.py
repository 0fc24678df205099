from eks_addons.settings import Settings


class TestSettings:
    def test_tag_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TAGS", '{"team": "platform"}')
        monkeypatch.setenv("IGNORE_TAGS_KEYS", '["ignorekey1"]')
        monkeypatch.setenv("IGNORE_TAGS_KEY_PREFIXES", '["kubernetes.io/"]')

        policy = Settings(_env_file=None).tag_policy()

        assert policy.default_tags == {"team": "platform"}
        assert policy.ignore_keys == ["ignorekey1"]
        assert policy.is_ignored("kubernetes.io/cluster/demo")

    def test_defaults(self, monkeypatch):
        for name in ("DEFAULT_TAGS", "IGNORE_TAGS_KEYS", "IGNORE_TAGS_KEY_PREFIXES", "AWS_ROLE_ARN"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.aws_role_arn is None
        assert settings.wait_for_completion is True
        assert settings.tag_policy().default_tags == {}
