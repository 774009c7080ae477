"""
chainpayout/evm/bytecode.py

Creation bytecode of the EVM payout contract (solc 0.7.6).
"""

PAYOUT_BYTECODE = bytes.fromhex(
    "608060405234801561001057600080fd5b50600180546001600160a01b03191633179055"
    "610585806100326000396000f3fe6080604052600436106100345760003560e01c80633b"
    "c4baa41461003957806370a082311461016257806386d1a69f146101a7575b600080fd5b"
    "6101606004803603604081101561004f57600080fd5b8101906020810181356401000000"
    "0081111561006a57600080fd5b82018360208201111561007c57600080fd5b8035906020"
    "019184602083028401116401000000008311171561009e57600080fd5b91908080602002"
    "602001604051908101604052809392919081815260200183836020028082843760009201"
    "919091525092959493602081019350359150506401000000008111156100ee57600080fd"
    "5b82018360208201111561010057600080fd5b8035906020019184602083028401116401"
    "000000008311171561012257600080fd5b91908080602002602001604051908101604052"
    "80939291908181526020018383602002808284376000920191909152509295506101bc94"
    "5050505050565b005b34801561016e57600080fd5b506101956004803603602081101561"
    "018557600080fd5b50356001600160a01b031661035f565b604080519182525190819003"
    "60200190f35b3480156101b357600080fd5b5061016061037a565b6001546001600160a0"
    "1b031633146102055760405162461bcd60e51b8152600401808060200182810382526022"
    "81526020018061052e6022913960400191505060405180910390fd5b8051825114610245"
    "5760405162461bcd60e51b81526004018080602001828103825260368152602001806104"
    "ce6036913960400191505060405180910390fd5b6000805b835181101561031a576102af"
    "83828151811061026157fe5b602002602001015160008087858151811061027857fe5b60"
    "200260200101516001600160a01b03166001600160a01b03168152602001908152602001"
    "6000205461044590919063ffffffff16565b6000808684815181106102be57fe5b602002"
    "60200101516001600160a01b03166001600160a01b031681526020019081526020016000"
    "20819055506103108382815181106102f957fe5b60200260200101518361044590919063"
    "ffffffff16565b9150600101610249565b503481111561035a5760405162461bcd60e51b"
    "815260040180806020018281038252602a815260200180610504602a9139604001915050"
    "60405180910390fd5b505050565b6001600160a01b031660009081526020819052604090"
    "205490565b336000908152602081905260409020546103c55760405162461bcd60e51b81"
    "526004018080602001828103825260278152602001806104a76027913960400191505060"
    "405180910390fd5b33600081815260208190526040808220805490839055905190929183"
    "156108fc02918491818181858888f19350505050158015610406573d6000803e3d6000fd"
    "5b50604080513381526020810183905281517fdf20fd1e76bc69d672e4814fafb2c449bb"
    "a3a5369d8359adf9e05e6fde87b056929181900390910190a150565b6000828201838110"
    "1561049f576040805162461bcd60e51b815260206004820152601b60248201527f536166"
    "654d6174683a206164646974696f6e206f766572666c6f77000000000060448201529051"
    "9081900360640190fd5b939250505056fe5061796d656e7453706c69747465723a206163"
    "636f756e7420686173206e6f2062616c616e636541646472657373657320616e64206261"
    "6c616e636573206172726179206d7573742068617665207468652073616d65206c656e67"
    "746853756d206f662062616c616e63657320697320686967686572207468616e20706169"
    "6420616d6f756e744f6e6c7920746865206f776e65722063616e20616464206e65772070"
    "61796f757473a26469706673582212202b8cf79a36e7f57cce5c7a341bb9923cfb47ef35"
    "5ee9dc62e6b7f5754c61938a64736f6c63430007060033"
)
