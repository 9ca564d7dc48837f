BASIC = "basic"
EMPTY = "empty"
STRUCTURED = "structured"

# A structured payload has no interchange form, so it can't be read back.
block_types = {
    BASIC,
    EMPTY,
}
