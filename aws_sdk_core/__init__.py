# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SDK Core provides request signing, credential resolution, the staged request
pipeline and the wire protocols shared by AWS service clients."""

__license__ = "Apache-2.0"
__version__ = "0.1.0"
