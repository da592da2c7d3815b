import json
import random
import unittest

from paylink.services.signature import compute_signature, verify

SECRET = "whsec_unit"
BODY = b'{"event":"payment_link.paid",  "payload": {"payment_link": {"entity": {"id": "plink_A1"}}}}'


class TestSignature(unittest.TestCase):
    def test_raw_body_verifies(self):
        self.assertTrue(verify(BODY, compute_signature(BODY, SECRET), SECRET))

    def test_reserialized_body_does_not_verify(self):
        # Re-dumping a parsed body changes whitespace, so the raw signature no longer matches
        reserialized = json.dumps(json.loads(BODY)).encode()
        self.assertNotEqual(reserialized, BODY)
        self.assertFalse(verify(reserialized, compute_signature(BODY, SECRET), SECRET))

    def test_wrong_secret(self):
        self.assertFalse(verify(BODY, compute_signature(BODY, "other"), SECRET))

    def test_missing_header_or_secret(self):
        sig = compute_signature(BODY, SECRET)
        self.assertFalse(verify(BODY, None, SECRET))
        self.assertFalse(verify(BODY, "", SECRET))
        self.assertFalse(verify(BODY, sig, None))
        self.assertFalse(verify(BODY, sig, ""))

    def test_never_raises_on_odd_input(self):
        self.assertFalse(verify(BODY, "zzé", SECRET))
        self.assertFalse(verify("not bytes", compute_signature(BODY, SECRET), SECRET))

    def test_single_byte_mutations_are_rejected(self):
        rng = random.Random(20241018)
        sig = compute_signature(BODY, SECRET)
        alphabet = "0123456789abcdefABCDEF"
        for _ in range(10000):
            if rng.random() < 0.5:
                body = bytearray(BODY)
                i = rng.randrange(len(body))
                body[i] ^= rng.randrange(1, 256)
                self.assertFalse(verify(bytes(body), sig, SECRET))
            else:
                i = rng.randrange(len(sig))
                c = rng.choice([ch for ch in alphabet if ch != sig[i]])
                self.assertFalse(verify(BODY, sig[:i] + c + sig[i + 1:], SECRET))


if __name__ == "__main__":
    unittest.main()
