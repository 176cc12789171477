"""
Campaigns feature package.

Holds the campaign status machine, the scheduling repository, the
scheduler service with its delivery delegate, the polling job and the
/campaigns router.
"""
