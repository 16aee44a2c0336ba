"""Producer / consumer / cleaner roles over the message store.

Each role is a plain thread talking to the store through its own pooled
connection; roles coordinate only through ``threading.Event`` signals
(ready-to-watch and stop). Within one cycle the consumer and cleaner fan
out one short-lived thread per fetched message id and join on a
completion counter before polling again, so a cycle never overlaps the
next one and concurrency stays bounded by the batch limit.

A broker-backed queue would replace the store as the source of truth;
here the store *is* the queue and the state column is the claim.
"""
