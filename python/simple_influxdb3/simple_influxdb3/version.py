# Copyright (c) 2025 by Terry Greeniaus.
# All rights reserved.
VERSION = '0.1.0'

USER_AGENT = 'simple-influxdb3/%s' % VERSION
