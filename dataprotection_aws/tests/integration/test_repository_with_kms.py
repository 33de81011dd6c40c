import asyncio

import pytest

pytest.importorskip("pytest_asyncio")

from dataprotection_aws.clients import persist_keys_to_s3, protect_keys_with_kms
from dataprotection_aws.core.exceptions import ContextMismatchError
from dataprotection_aws.kms.context import ENVELOPE_ELEMENT
from dataprotection_aws.utils.config import S3RepositoryConfig
from dataprotection_aws.utils.xml import elements_equal, serialize_element


@pytest.mark.asyncio
async def test_encrypted_key_ring_round_trip(s3_client, kms_client, kms_config, make_key):
    repository = persist_keys_to_s3(S3RepositoryConfig(bucket="keys", max_concurrency=4), s3_client)
    encryptor, decryptor = protect_keys_with_kms(kms_config, kms_client)

    originals = {f"key-{index}": make_key(f"key-{index}") for index in range(12)}
    for name, element in originals.items():
        info = await encryptor.encrypt(element, discriminator="orders-api")
        await repository.store_element(info.element, name)

    stored = await repository.get_all_elements()
    assert len(stored) == 12
    assert all(element.tag == ENVELOPE_ELEMENT for element in stored)

    decrypted = await asyncio.gather(
        *(decryptor.decrypt(element, discriminator="orders-api") for element in stored)
    )
    by_id = {element.get("id"): element for element in decrypted}
    assert set(by_id) == set(originals)
    for key_id, element in originals.items():
        assert elements_equal(by_id[key_id], element)
        assert serialize_element(by_id[key_id]) == serialize_element(element)


@pytest.mark.asyncio
async def test_second_application_cannot_open_shared_bucket(s3_client, kms_client, kms_config, make_key):
    repository = persist_keys_to_s3(S3RepositoryConfig(bucket="keys"), s3_client)
    encryptor, owner_decryptor = protect_keys_with_kms(kms_config, kms_client)
    _, other_decryptor = protect_keys_with_kms(kms_config, kms_client)

    original = make_key("private")
    info = await encryptor.encrypt(original, discriminator="billing")
    await repository.store_element(info.element, "private")

    (stored,) = await repository.get_all_elements()
    with pytest.raises(ContextMismatchError):
        await other_decryptor.decrypt(stored, discriminator="orders-api")

    restored = await owner_decryptor.decrypt(stored, discriminator="billing")
    assert serialize_element(restored) == serialize_element(original)


@pytest.mark.asyncio
async def test_key_rings_under_different_prefixes_stay_separate(s3_client, make_key):
    first = persist_keys_to_s3(S3RepositoryConfig(bucket="keys", key_prefix="app-a/"), s3_client)
    second = persist_keys_to_s3(S3RepositoryConfig(bucket="keys", key_prefix="app-b/"), s3_client)

    await first.store_element(make_key("a"), "a")
    await second.store_element(make_key("b"), "b")

    assert [element.get("id") for element in await first.get_all_elements()] == ["a"]
    assert [element.get("id") for element in await second.get_all_elements()] == ["b"]
