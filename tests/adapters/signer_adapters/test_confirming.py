import pytest

from fakes import FakeSigner
from vault_hub.adapters.signer_adapters import ConfirmingSigner, TransactionRequest
from vault_hub.errors import UserDeclinedError

REQUEST = TransactionRequest(to="0x" + "ab" * 20, data=b"", label="withdraw from Test")


@pytest.mark.asyncio
async def test_declined_request_is_never_submitted():
    inner = FakeSigner()
    asked: list[TransactionRequest] = []

    def decline(request):
        asked.append(request)
        return False

    signer = ConfirmingSigner(inner, decline)

    with pytest.raises(UserDeclinedError, match="withdraw from Test"):
        await signer.submit(REQUEST)

    assert asked == [REQUEST]
    assert inner.submitted == []


@pytest.mark.asyncio
async def test_confirmed_request_is_forwarded():
    inner = FakeSigner()
    signer = ConfirmingSigner(inner, lambda _: True)

    handle = await signer.submit(REQUEST)

    assert inner.submitted == [REQUEST]
    assert handle.tx_hash.startswith("0x")
    assert signer.address == inner.address
