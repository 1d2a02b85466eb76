import hashlib
import hmac


def app_secret_proof(*, access_token: str, app_secret: str) -> str:
    """
    Sign an access token with the app secret.

    Parameters
    ----------
    access_token : str
        Token sent with the call.
    app_secret : str
        Secret of the app the token belongs to.

    Returns
    -------
    str
        Hex HMAC-SHA256 of the token, sent as ``appsecret_proof``.
    """
    return hmac.new(
        key=app_secret.encode("utf-8"),
        msg=access_token.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()
